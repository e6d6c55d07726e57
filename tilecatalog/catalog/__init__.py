"""
Tile catalog implementations: the abstract contract (``core``), an
in-process catalog over the repository (``local``) and an HTTP client
(``http``).
"""
