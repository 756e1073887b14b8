"""
Invoice Extraction Pipeline - Source Package.

Turns an uploaded invoice (PDF or raster image) into a structured invoice
record: OCR with Tesseract, field extraction with a hosted LLM, validation
with default substitution, persistence, and progress events for observers.

Modules:
    - input_handler: upload validation, image preprocessing, PDF rendering
    - ocr_engine: OCR engines, engine registry, confidence heuristic
    - model_inference: LLM prompt, client and tolerant response parsing
    - postprocessor: field validation and record assembly
    - output_handler: persistence gateways and file storage
    - pipeline: extraction orchestrator and progress events

Architecture:
    Input → OCR → LLM Extraction → Assembly → Persistence
                 progress event after every stage
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'input_handler',
    'ocr_engine',
    'model_inference',
    'postprocessor',
    'output_handler',
    'pipeline',
    'records',
    'utils'
]
