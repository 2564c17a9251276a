"""Services for the MySQL to MariaDB converter."""

from .conversion import ConversionEngine, convert_mysql_to_mariadb
from .conversion_job_service import ConversionJobService
from .job_store import ConversionJobStore, get_job_store
from .upload_service import SqlUploadService

__all__ = [
    "ConversionEngine",
    "convert_mysql_to_mariadb",
    "ConversionJobService",
    "ConversionJobStore",
    "get_job_store",
    "SqlUploadService",
]
