class QRError(ValueError):
    message = 'QR error.'

    def __init__(self, message=None):
        super().__init__(message or self.message)


class InvalidVersionError(QRError):
    message = 'Invalid version.'


class InvalidMaskError(QRError):
    message = 'Invalid mask.'


class InvalidCorrectionLevelError(QRError):
    message = 'Invalid error correction level.'


class InvalidNumericStringError(QRError):
    message = 'String contains non-numeric characters.'


class InvalidAlphanumericStringError(QRError):
    message = 'String contains unencodable characters in alphanumeric mode.'


class InvalidKanjiStringError(QRError):
    message = 'String contains unencodable characters in kanji mode.'


class InvalidTextError(QRError):
    message = 'String cannot be encoded as UTF-8.'


class InvalidECIDesignatorError(QRError):
    message = 'Invalid ECI designator.'


class InvalidCharacterCountError(QRError):
    message = 'Invalid number of characters.'


class InvalidCodewordCountError(QRError):
    message = 'Invalid number of data codewords.'


class DataTooLongError(QRError):
    # used_bits is None when a segment does not fit its count field
    def __init__(self, used_bits, capacity_bits):
        self.used_bits = used_bits
        self.capacity_bits = capacity_bits
        if used_bits is None:
            message = 'Segment too long'
        else:
            message = 'Data length = {} bits, Max capacity = {} bits'.format(
                used_bits, capacity_bits)
        super().__init__(message)
