"""Independent audit checks.

Pure checks (``headers``, ``seo``, ``accessibility``) work on the already
fetched root page.  Remote checks (``tls``, ``site``, ``wordpress``) make
their own requests and return a neutral default when those fail.
"""

from webaudit.checks import accessibility, headers, seo, site, tls, wordpress

__all__ = ["accessibility", "headers", "seo", "site", "tls", "wordpress"]
