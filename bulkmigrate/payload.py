from bulkmigrate.records import InputRecord


def input_to_payload(record: InputRecord) -> dict[str, object]:
    """Default mapping from an input row to upload call parameters.

    ``Url`` is the asset to fetch and ``Id`` becomes the remote public id.
    Replace this through PAYLOAD_TRANSFORM / ``--transform`` for other layouts.
    """
    file = record.get("Url", "").strip()
    if not file:
        raise ValueError("input record has no Url")

    options: dict[str, object] = {
        "public_id": record.get("Id") or None,
        "unique_filename": False,
        "resource_type": "auto",
        "type": "upload",
    }
    if record.get("Tags"):
        options["tags"] = record["Tags"]
    if record.get("Description"):
        options["context"] = {"caption": record["Description"]}

    return {"file": file, "options": options}
