from typing import Any, Dict, Final, List, Literal
from pydantic import BaseModel, Field

from model.record import NamespaceRecord
from util.enums import ProjectStatus


class ProjectSetupConfig(BaseModel):
    projectName: str = Field(min_length=1)
    namespace: str = Field(min_length=1)
    description: str = ""
    tables: Dict[str, str] = Field(default_factory=dict)  # table -> description
    adminEmail: str = ""


class ProjectDescriptor(BaseModel):
    name: str
    namespace: str
    description: str = ""
    tables: Dict[str, str] = Field(default_factory=dict)
    adminEmail: str = ""
    createdAt: str
    status: ProjectStatus = ProjectStatus.ACTIVE


class TableMetadata(BaseModel):
    tableName: str
    description: str = ""
    createdAt: str
    # Snapshot at creation; nothing keeps it current.
    recordCount: int = 0
    lastUpdated: str


class ProjectExport(BaseModel):
    namespace: str
    exportedAt: str
    recordCount: int
    data: List[NamespaceRecord] = Field(default_factory=list)


class SyncReport(BaseModel):
    source: str
    target: str
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    failedKeys: List[str] = Field(default_factory=list)


class TableStatus(BaseModel):
    namespace: str
    table: str
    checkedAt: str
    status: Literal["success", "error"]
    recordCount: int = 0


SAMPLE_SETTINGS: Final[Dict[str, Any]] = {
    "theme": "light",
    "language": "zh-CN",
    "version": "1.0.0",
    "features": ["crud", "auth", "sync"],
    "settings": {
        "autoSync": True,
        "backupInterval": 3600000,  # ms
        "maxRecords": 10000,
    },
}

SAMPLE_USER_SCHEMA: Final[Dict[str, Any]] = {
    "schema": {
        "id": "string",
        "name": "string",
        "email": "string",
        "role": "enum: user|admin",
        "createdAt": "datetime",
        "updatedAt": "datetime",
    },
    "constraints": {
        "required": ["id", "name", "email"],
        "unique": ["id", "email"],
    },
}

PROJECT_TEMPLATES: Final[Dict[str, ProjectSetupConfig]] = {
    "basic": ProjectSetupConfig(
        projectName="Basic project",
        namespace="basic",
        description="Basic CRUD application template",
        tables={
            "users": "User records",
            "settings": "Configuration records",
            "logs": "Log records",
        },
        adminEmail="admin@example.com",
    ),
    "ecommerce": ProjectSetupConfig(
        projectName="E-commerce",
        namespace="shop",
        description="Storefront administration",
        tables={
            "products": "Product catalogue",
            "orders": "Orders",
            "customers": "Customers",
            "inventory": "Stock levels",
        },
        adminEmail="admin@shop.com",
    ),
    "blog": ProjectSetupConfig(
        projectName="Blog",
        namespace="blog",
        description="Personal blog administration",
        tables={
            "posts": "Articles",
            "categories": "Categories",
            "comments": "Comments",
            "tags": "Tags",
        },
        adminEmail="admin@blog.com",
    ),
}
