"""
Domain Errors
Exceptions raised by models and services, answered as JSON by the routes
"""


class PosError(Exception):
    """Base class for errors a POS request can recover from"""
    status_code = 422

    def to_dict(self):
        return {'success': False, 'error': str(self)}


class RecordInvalid(PosError):
    """A record failed validation and was not saved"""

    def __init__(self, record, errors):
        self.record = record
        self.errors = list(errors)
        super().__init__(f"{type(record).__name__} is invalid: {'; '.join(self.errors)}")

    def to_dict(self):
        data = super().to_dict()
        data['errors'] = self.errors
        return data


class PaymentError(PosError):
    """Payment cannot move to the requested state"""


class LineItemNotFound(PosError):
    """Variant is not part of the order"""
    status_code = 404
