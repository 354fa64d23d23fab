from .entity_detection import classify, contains_pii, find_emails, find_phones, is_email, is_phone
from .models import PageRedactionSet, PIIMatch, RedactionOptions, RedactionStatistics, TextRun
from .pipeline import analyze_document, redact_document
