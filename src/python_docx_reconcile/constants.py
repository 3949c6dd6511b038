"""
Centralized constants for OOXML namespaces, package parts and token grammar.

Import from here rather than repeating namespace URLs or placeholder
prefixes across modules.
"""

# =============================================================================
# Word Processing Namespaces
# =============================================================================

# Main WordprocessingML namespace (Word 2007+)
WORD_NAMESPACE = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

# Office Math Markup Language namespace (equations inside runs and cells)
MATH_NAMESPACE = "http://schemas.openxmlformats.org/officeDocument/2006/math"


# =============================================================================
# Namespace Maps
# =============================================================================

NSMAP = {
    "w": WORD_NAMESPACE,
    "m": MATH_NAMESPACE,
}


def w(tag: str) -> str:
    """Return the Clark-notation name for a WordprocessingML tag."""
    return f"{{{WORD_NAMESPACE}}}{tag}"


def m(tag: str) -> str:
    """Return the Clark-notation name for an OMML tag."""
    return f"{{{MATH_NAMESPACE}}}{tag}"


# =============================================================================
# Package Parts
# =============================================================================

DOCUMENT_PART = "word/document.xml"
COMMENTS_PART = "word/comments.xml"


# =============================================================================
# Annotation Grammar
# =============================================================================

INSERTION_OPEN, INSERTION_CLOSE = "{++", "++}"
DELETION_OPEN, DELETION_CLOSE = "{--", "--}"
SUBSTITUTION_OPEN, SUBSTITUTION_SEP, SUBSTITUTION_CLOSE = "{~~", "~>", "~~}"
COMMENT_OPEN, COMMENT_CLOSE = "{>>", "<<}"

# Attribute block appended to a comment's matched anchor span: [anchor]{marked}
MARKED_ATTRIBUTE = "{marked}"

# Every delimiter that may open or close an annotation; a span containing any
# of these is never wrapped as a marked anchor.
ANNOTATION_DELIMITERS = (
    INSERTION_OPEN,
    INSERTION_CLOSE,
    DELETION_OPEN,
    DELETION_CLOSE,
    SUBSTITUTION_OPEN,
    SUBSTITUTION_SEP,
    SUBSTITUTION_CLOSE,
    COMMENT_OPEN,
    COMMENT_CLOSE,
)


# =============================================================================
# Image Registry
# =============================================================================

REGISTRY_DIRNAME = ".rev"
REGISTRY_FILENAME = "image-registry.json"
REGISTRY_VERSION = 1

# Caption lookups are keyed on the first 50 characters, lower-cased
CAPTION_KEY_LENGTH = 50
