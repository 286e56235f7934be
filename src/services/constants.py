"""Constants shared by the Google Cloud service wrappers."""

DEFAULT_LIST_TIMEOUT = 30.0

DEFAULT_EXPORT_RETRIES = 3
DEFAULT_EXPORT_DELAY = 0.5
DELIMITER_COMMA = ","
DELIMITER_SEMICOLON = ";"

# Returned by dry runs that have nothing to estimate.
DRY_RUN_NOT_APPLICABLE = -1

ERROR_MESSAGES = {
    # BigQuery
    'init_bigquery_client_failed': "could not initialize BigQuery client",
    'get_project_names_failed': "could not get BigQuery project names",
    'get_dataset_names_failed': "could not get BigQuery dataset names",
    'get_bigquery_table_names_failed': "could not get BigQuery table names",
    'get_column_metadata_failed': "could not get BigQuery column metadata",
    'get_table_schema_failed': "could not get BigQuery table schema",
    'create_bigquery_table_failed': "could not create BigQuery table",
    'delete_bigquery_table_failed': "could not delete BigQuery table",
    'insert_row_failed': "could not insert new row to BigQuery table",
    'dry_run_query_failed': "could not dry run query",
    'run_query_failed': "could not run query",
    'export_query_failed': "could not run export query",
    'temporary_table_not_found': "could not find temporary table",
    'extract_failed': "could not extract query result to Storage",
    # Bigtable
    'init_bigtable_client_failed': "could not initialize Bigtable client",
    'get_bigtable_table_names_failed': "could not get Bigtable table names",
    'create_bigtable_table_failed': "could not create Bigtable table",
    'delete_bigtable_table_failed': "could not delete Bigtable table",
    'get_family_names_failed': "could not get Bigtable column family names",
    'create_family_name_failed': "could not create Bigtable column family name",
    'add_row_failed': "could not add a new Bigtable row",
    'read_row_by_key_failed': "could not read Bigtable row by its key",
    'read_rows_by_keys_failed': "could not read Bigtable rows by its keys",
    'read_rows_by_key_prefix_failed': "could not read Bigtable rows by its key prefix",
    'read_rows_by_key_range_failed': "could not read Bigtable rows by its key range",
    'read_rows_failed': "could not read Bigtable rows",
    # Storage
    'init_storage_client_failed': "could not initialize Storage client",
    'get_bucket_names_failed': "could not get Storage bucket names",
    'get_file_names_failed': "could not get Storage file names",
    'stream_failed': "could not stream from Storage service",
    'download_failed': "could not download from Storage service",
    'upload_failed': "could not upload to Storage service",
    'copy_failed': "could not copy file",
}
