"""Repository full-name utilities.

GitHub identifies repositories by ``owner/name``. The crawler keys caches and
output files on that string, so parsing and file-safe rendering live here.
"""

from __future__ import annotations


def repo_slug(owner: str, name: str) -> str:
    """Build a repository full name from owner and name.

    Examples
    --------
    >>> repo_slug("tensorflow", "tfx")
    'tensorflow/tfx'

    """
    return f"{owner}/{name}"


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Parse a repository full name into owner and name.

    Parameters
    ----------
    slug:
        Repository full name in ``owner/name`` format.

    Returns
    -------
    tuple[str, str]
        ``(owner, name)``.

    Raises
    ------
    ValueError
        If the slug is not in ``owner/name`` format.

    Examples
    --------
    >>> parse_repo_slug("tensorflow/tfx")
    ('tensorflow', 'tfx')

    """
    if slug.count("/") != 1:
        msg = f"Invalid repository full name: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)

    owner, name = slug.split("/")
    if not owner or not name:
        msg = f"Invalid repository full name: expected 'owner/name', got {slug!r}"
        raise ValueError(msg)

    return owner, name


def file_safe_slug(slug: str) -> str:
    """Render a full name for use in a file name.

    >>> file_safe_slug("vercel/next.js")
    'vercel_next_js'

    """
    return slug.replace("/", "_").replace(".", "_")
