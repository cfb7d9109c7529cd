from .consent_record import ConsentRecord

__all__ = [
    "ConsentRecord",
]
