"""DynamoDB implementation of ResourceCatalog."""

from decimal import Decimal
from typing import Any

import boto3
from botocore.exceptions import ClientError
from resource_media_shared import CatalogPatch
from resource_media_shared.interfaces import CatalogUpdateError


def _to_dynamodb_value(value: Any) -> Any:
    """DynamoDB resource API rejects float; store numbers as Decimal."""
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class DynamoDBResourceCatalog:
    """ResourceCatalog: Resources table keyed by resource id, patched with SET updates."""

    def __init__(
        self,
        table_name: str,
        *,
        key_attribute: str = "id",
        region_name: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self._table_name = table_name
        self._key_attribute = key_attribute
        self._resource = boto3.resource(
            "dynamodb",
            region_name=region_name,
            endpoint_url=endpoint_url,
        )
        self._table = self._resource.Table(table_name)

    def get(self, resource_id: str) -> dict[str, Any] | None:
        """Return the raw resource item, or None if it does not exist."""
        resp = self._table.get_item(
            Key={self._key_attribute: resource_id},
            ConsistentRead=True,
        )
        return resp.get("Item")

    def apply_patch(self, resource_id: str, patch: CatalogPatch) -> None:
        """
        Set only the patch's non-null attributes on an existing resource.

        Attributes not in the patch are left untouched. The update is conditional
        on the item existing so a stale message cannot create a phantom record.
        """
        fields = patch.to_fields()
        updates: list[str] = []
        expr_names: dict[str, str] = {"#pk": self._key_attribute}
        expr_values: dict[str, Any] = {}
        for i, (name, value) in enumerate(sorted(fields.items())):
            updates.append(f"#f{i} = :v{i}")
            expr_names[f"#f{i}"] = name
            expr_values[f":v{i}"] = _to_dynamodb_value(value)

        try:
            self._table.update_item(
                Key={self._key_attribute: resource_id},
                UpdateExpression="SET " + ", ".join(updates),
                ConditionExpression="attribute_exists(#pk)",
                ExpressionAttributeNames=expr_names,
                ExpressionAttributeValues=expr_values,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise CatalogUpdateError(
                    f"resource {resource_id!r} not found in {self._table_name}"
                ) from e
            raise CatalogUpdateError(
                f"catalog update failed for resource {resource_id!r}: {e}"
            ) from e
