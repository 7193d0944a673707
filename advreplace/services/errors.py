class AdvReplaceError(Exception):
    pass


class UnsupportedCapability(AdvReplaceError):
    """The database engine lacks an operator the job needs (regex match, text replace)."""


class UnsupportedColumnType(AdvReplaceError):
    """Replace was requested on a column that is neither text nor char."""


class ValidationError(AdvReplaceError):
    """Job parameters (or a replace input file) are malformed or conflicting."""
