from typing import Optional

from src.services.config import ExportConfig
from src.services.google import Google
from src.services.utils import get_logger

logger = get_logger(__name__)

EXPORT_FORMATS = ("csv", "json")


def export_query(
    project_id: str,
    query: str,
    gcs_uri: str,
    export_format: str = "csv",
    config: Optional[ExportConfig] = None,
    google: Optional[Google] = None,
) -> int:
    """
    Estimate a query, then export its result to Cloud Storage.

    Returns the estimated bytes processed.
    """
    export_format = export_format.lower()
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {export_format}")

    google = google or Google.default()
    client = google.bigquery(project_id)

    estimated = client.dry_run_query(query, config)
    logger.info(f"Query will process {estimated} bytes.")

    logger.info(f"Exporting query result to {gcs_uri} as {export_format}...")
    try:
        if export_format == "csv":
            client.run_query_to_csv(query, gcs_uri, config)
        else:
            client.run_query_to_json(query, gcs_uri, config)
    except Exception as e:
        logger.error(f"Error exporting query result: {e}")
        raise
    logger.info("Query result successfully exported.")
    return estimated
