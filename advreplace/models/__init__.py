from advreplace.models.search import Search
from advreplace.models.file_search import FileSearch
from advreplace.models.stored_file import StoredFile

__all__ = ["Search", "FileSearch", "StoredFile"]
