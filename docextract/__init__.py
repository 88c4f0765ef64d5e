"""Document text extraction service.

Preprocesses uploaded document images with Pillow and OpenCV, extracts
their text through a vision-language model, and falls back to local
Tesseract OCR when the primary engine fails or returns too little text.
"""

__version__ = "1.0.0"
