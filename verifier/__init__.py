"""College Email Verifier.

Verifies student ID card uploads with an OCR-to-decision pipeline
(OpenCV preprocessing, Tesseract OCR, regex field parsing and fuzzy
identity matching) and drives the admin review and institutional email
issuance workflow built on top of it.
"""
