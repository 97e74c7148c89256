"""
Input sanitization for contact, log entry and attachment fields.

Rejects:
- Null bytes in strings
- Control characters (except newlines/tabs in free text)
- Path components in uploaded filenames
- Avatar values that are not base64 image data URLs
"""
import base64
import binascii
import re
from typing import Optional


class InputSanitizer:
    """Validates and normalizes user input."""

    NULL_BYTE_PATTERN = re.compile(r'\x00')
    CONTROL_CHAR_PATTERN = re.compile(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]')  # Except \t=0x09, \n=0x0a, \r=0x0d
    LINE_BREAK_PATTERN = re.compile(r'[\r\n]')
    FILENAME_STRIP_PATTERN = re.compile(r'[\x00-\x1f\x7f"]')
    DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>image/[a-z0-9.+-]+);base64,(?P<payload>.*)$', re.DOTALL)

    AVATAR_MIME_TYPES = {
        'image/jpeg',
        'image/jpg',
        'image/png',
        'image/gif',
        'image/webp',
    }

    @staticmethod
    def sanitize_string(value: str, max_length: Optional[int] = None, allow_newlines: bool = False) -> str:
        """
        Sanitize string input.

        Args:
            value: Input string
            max_length: Optional max length
            allow_newlines: Allow \\n and \\r characters (for notes/content)

        Returns:
            The input string, unchanged

        Raises:
            ValueError: If input contains forbidden characters or is too long
        """
        if not isinstance(value, str):
            raise ValueError("Input must be string")

        if InputSanitizer.NULL_BYTE_PATTERN.search(value):
            raise ValueError("Null bytes not allowed")

        if InputSanitizer.CONTROL_CHAR_PATTERN.search(value):
            raise ValueError("Control characters not allowed")

        if not allow_newlines and InputSanitizer.LINE_BREAK_PATTERN.search(value):
            raise ValueError("Line breaks not allowed")

        if max_length and len(value) > max_length:
            raise ValueError(f"Input exceeds max length of {max_length}")

        return value

    @staticmethod
    def sanitize_required_line(value: str, field: str, max_length: int = 255) -> str:
        """Trim a single-line required field (contact name, log title)."""
        if value is None or not str(value).strip():
            raise ValueError(f"{field} is required")
        return InputSanitizer.sanitize_string(value.strip(), max_length=max_length)

    @staticmethod
    def sanitize_text(value: Optional[str], max_length: int = 100000, strip: bool = False) -> str:
        """Free text (notes, log content). None becomes an empty string."""
        if value is None:
            return ''
        sanitized = InputSanitizer.sanitize_string(value, max_length=max_length, allow_newlines=True)
        return sanitized.strip() if strip else sanitized

    @staticmethod
    def normalize_tags(tags: Optional[list[str]]) -> list[str]:
        """
        Lower-case and trim tags, drop empties and duplicates.

        First occurrence wins, so the user's ordering is kept.
        """
        if not tags:
            return []

        seen: set[str] = set()
        normalized: list[str] = []
        for tag in tags:
            if not isinstance(tag, str):
                raise ValueError("Each tag must be string")
            t_clean = InputSanitizer.sanitize_string(tag, max_length=64).strip().lower()
            if t_clean and t_clean not in seen:
                seen.add(t_clean)
                normalized.append(t_clean)
        return normalized

    @staticmethod
    def sanitize_filename(filename: Optional[str]) -> str:
        """
        Reduce an uploaded filename to a bare name safe for a quoted header value.

        Directory components, control characters and double quotes are dropped;
        everything else (including non-ASCII) is kept.
        """
        if not filename:
            return 'unnamed'

        filename = filename.replace('\\', '/').split('/')[-1]
        filename = InputSanitizer.FILENAME_STRIP_PATTERN.sub('', filename).strip()

        if filename in ('', '.', '..'):
            return 'unnamed'

        if len(filename) > 255:
            stem, dot, ext = filename.rpartition('.')
            if dot and len(ext) < 16:
                filename = stem[:255 - len(ext) - 1] + '.' + ext
            else:
                filename = filename[:255]

        return filename

    @staticmethod
    def validate_avatar(value: Optional[str], max_bytes: int) -> Optional[str]:
        """Accept a `data:image/<type>;base64,` URL whose decoded payload fits `max_bytes`."""
        if value is None or value == '':
            return None

        match = InputSanitizer.DATA_URL_PATTERN.match(value.strip())
        if not match:
            raise ValueError("Avatar must be a base64 image data URL")

        if match.group('mime').lower() not in InputSanitizer.AVATAR_MIME_TYPES:
            raise ValueError("Avatar image type not allowed")

        try:
            decoded = base64.b64decode(match.group('payload'), validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("Avatar is not valid base64")

        if len(decoded) > max_bytes:
            raise ValueError(f"Avatar exceeds {max_bytes // (1024 * 1024)}MB limit")

        return value.strip()

    @staticmethod
    def to_data_url(mime_type: str, payload: bytes) -> str:
        return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"
