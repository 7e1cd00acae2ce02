import re
from typing import Optional

# Runs of digits and separators that end in a digit
READING_PATTERN = re.compile(r"[\d,.]+\d+")


def normalize_reading(raw_text: Optional[str]) -> Optional[str]:
    """Extract the most likely meter reading from raw OCR text.

    Keeps digits and separators, drops leading zeros, picks the run with the
    most digits (the last one on ties) and uses '.' as the decimal separator. Returns None when the
    text holds no reading.
    """
    if not raw_text:
        return None

    clean = re.sub(r"[^\d,.]", "", raw_text)
    clean = re.sub(r"^0+(\d)", r"\1", clean)

    candidates = READING_PATTERN.findall(clean)
    if not candidates:
        return None

    best = candidates[0]
    for candidate in candidates[1:]:
        if len(re.sub(r"\D", "", candidate)) >= len(re.sub(r"\D", "", best)):
            best = candidate

    return best.replace(",", ".", 1)
