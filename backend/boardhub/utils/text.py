"""Text helpers for form input and display names."""


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def fallback_name_from_email(email: str | None) -> str:
    """Local part of an email address, or "Someone" when there is none."""
    local = normalize_email(email).split("@", 1)[0].strip()
    return local or "Someone"


def display_name(full_name: str | None, email: str | None) -> str:
    """Name shown to other members for an actor."""
    name = (full_name or "").strip()
    return name or fallback_name_from_email(email)


def preview(content: str, length: int = 100) -> str:
    return content[:length]


def profile_name(full_name: str | None) -> str:
    """Name shown in member lists and comment threads."""
    return (full_name or "").strip() or "User"
