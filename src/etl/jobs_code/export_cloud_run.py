import os

from dotenv import load_dotenv

from src.etl.export_query import export_query
from src.services.config import ExportConfig
from src.services.google import Google


def main():
    load_dotenv()
    project_id = os.getenv("GCP_PROJECT_ID")
    query = os.getenv("EXPORT_QUERY")
    gcs_uri = os.getenv("EXPORT_GCS_URI")
    if not project_id or not query or not gcs_uri:
        raise RuntimeError("Missing GCP_PROJECT_ID, EXPORT_QUERY or EXPORT_GCS_URI")

    config = ExportConfig(
        retries=int(os.getenv("EXPORT_RETRIES", "3")),
        compressed=os.getenv("EXPORT_COMPRESSED", "false").lower() == "true",
        labels={"job": "export-cloud-run"},
    )

    google = Google()
    try:
        export_query(
            project_id=project_id,
            query=query,
            gcs_uri=gcs_uri,
            export_format=os.getenv("EXPORT_FORMAT", "csv"),
            config=config,
            google=google,
        )
    finally:
        google.close()

if __name__ == "__main__":
    main()
