"""Cross-cutting pieces shared by every domain package: enums, errors, audit, paging."""
