from meter_ocr.types import ErrorKind


def digit_projection(text: str) -> str:
    """Return ``text`` with every non-digit character removed."""
    return "".join(ch for ch in text if _is_digit(ch))


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


class PatternClassifier:
    """Tags how an OCR reading differs from the user's corrected value.

    The checks run in a fixed order because the categories overlap: a single
    swapped digit also has equal-length digit projections, and so on.
    """

    def classify(self, original: str, corrected: str) -> ErrorKind:
        if not original or not corrected:
            return ErrorKind.UNKNOWN

        if self.is_digit_confusion(original, corrected):
            return ErrorKind.DIGIT_CONFUSION
        if self.is_extra_digit(original, corrected):
            return ErrorKind.EXTRA_DIGIT
        if self.is_missing_digit(original, corrected):
            return ErrorKind.MISSING_DIGIT
        if self.is_format_error(original, corrected):
            return ErrorKind.FORMAT_ERROR
        return ErrorKind.OTHER

    @staticmethod
    def is_digit_confusion(original: str, corrected: str) -> bool:
        if len(original) != len(corrected):
            return False
        differences = [(a, b) for a, b in zip(original, corrected) if a != b]
        return len(differences) == 1 and _is_digit(differences[0][0]) and _is_digit(differences[0][1])

    @staticmethod
    def is_extra_digit(original: str, corrected: str) -> bool:
        return len(original) == len(corrected) + 1 and digit_projection(corrected) in digit_projection(original)

    @staticmethod
    def is_missing_digit(original: str, corrected: str) -> bool:
        return len(original) + 1 == len(corrected) and digit_projection(original) in digit_projection(corrected)

    @staticmethod
    def is_format_error(original: str, corrected: str) -> bool:
        return digit_projection(original) == digit_projection(corrected) and original != corrected
