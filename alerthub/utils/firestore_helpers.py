"""
Firestore query helpers.

NOTE: For firebase_admin SDK, positional where() arguments still work;
newer SDKs emit a deprecation warning for them. Keeping every call behind
this helper leaves one place to switch to FieldFilter.
"""


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "is_active", "==", True)
        query = where_filter(query, "phone", "==", "+15551234567")
    """
    return query.where(field_path, op_string, value)

