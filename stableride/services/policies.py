from stableride.errors import ValidationError


def parse_version(version: str) -> tuple[int, int, int]:
    try:
        major, minor, patch = (int(p) for p in version.split("."))
    except ValueError:
        raise ValidationError(f"Invalid version {version!r}, expected MAJOR.MINOR.PATCH")
    return major, minor, patch


def bump_minor(version: str) -> str:
    major, minor, _ = parse_version(version)
    return f"{major}.{minor + 1}.0"


def next_version(current: str, requested: str | None) -> str:
    """Explicit versions must move forward; otherwise the minor number is bumped."""
    if requested is None:
        return bump_minor(current)
    if parse_version(requested) <= parse_version(current):
        raise ValidationError(f"Version {requested} must be greater than {current}")
    return requested
