class InternalURIs:
    API = "/api"
    V1 = API + "/v1"
    NAMESPACES = V1 + "/namespaces"
    DATA = V1 + "/data/{namespace}/{table}/{key:path}"
    TABLE_RECORDS = V1 + "/tables/{table}/records"
    SHARED = V1 + "/shared/{table}/{key:path}"
    SHARED_TABLE = V1 + "/shared/{table}"
    SYNC = V1 + "/sync"
    SYNC_STATUS = V1 + "/sync/status"
    PROJECTS = V1 + "/projects"
    PROJECT_TEMPLATES = PROJECTS + "/templates"
    PROJECT_EXISTS = PROJECTS + "/{namespace}/exists"
    PROJECT_EXPORT = PROJECTS + "/{namespace}/export"
    PROJECT_IMPORT = PROJECTS + "/import"
    PROJECT_SYNC = PROJECTS + "/sync"
    PROJECT = PROJECTS + "/{namespace}"
    PROJECT_CONFIG_FILE = PROJECTS + "/config-file"


class ExternalURIs:
    # Relative to settings.KV_BASE_URL
    DATA = "/data"
