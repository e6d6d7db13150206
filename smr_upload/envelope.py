"""
Module for encoding chunk uploads as GraphQL multipart requests.

Each request carries three form fields, in order: ``operations`` (the
mutation and its variables, with ``file`` set to null), ``map`` (linking
form field ``"0"`` to ``variables.file``) and ``"0"`` (the chunk bytes).
"""
import json
from typing import Optional, Tuple

from urllib3 import encode_multipart_formdata

UPLOAD_VERSION_PART_MUTATION = """mutation UploadVersionPart($modId: ModID!, $versionId: VersionID!, $part: Int!, $file: Upload!) {
  uploadVersionPart(modId: $modId, versionId: $versionId, part: $part, file: $file)
}"""

FILE_FIELD = "0"
FILE_CONTENT_TYPE = "application/octet-stream"


def build_operations(mod_id: str, version_id: str, part_number: int) -> dict:
    return {
        "query": UPLOAD_VERSION_PART_MUTATION,
        "variables": {
            "modId": mod_id,
            "versionId": version_id,
            "part": part_number,
            "file": None,
        },
    }


def build_envelope(mod_id: str, version_id: str, part_number: int,
                   chunk_bytes: bytes, file_base_name: str,
                   boundary: Optional[str] = None) -> Tuple[bytes, str]:
    """Encode one UploadVersionPart invocation as a multipart body.

    Args:
        mod_id: Identifier of the mod
        version_id: Identifier of the version being uploaded
        part_number: 1-based part number of the chunk
        chunk_bytes: Raw bytes of the chunk
        file_base_name: Filename sent with the file part
        boundary: Optional fixed multipart boundary

    Returns:
        Tuple of (body bytes, Content-Type header value)
    """
    operations = json.dumps(build_operations(mod_id, version_id, part_number))
    file_map = json.dumps({FILE_FIELD: ["variables.file"]})

    fields = [
        ("operations", operations),
        ("map", file_map),
        (FILE_FIELD, (file_base_name, chunk_bytes, FILE_CONTENT_TYPE)),
    ]
    return encode_multipart_formdata(fields, boundary=boundary)
