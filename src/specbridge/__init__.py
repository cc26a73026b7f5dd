"""specbridge -- bidirectional OpenAPI <-> ContractSpec transformation engine.

Inbound, an OpenAPI 3.0/3.1 document is parsed, its local ``$ref`` pointers
are resolved and every operation is imported as generated operation code
plus a live canonical :class:`~specbridge.contracts.OperationSpec`.
Outbound, canonical registries are exported to an OpenAPI 3.1 document with
vendor extensions. The differ compares both sides and produces a sync report.

Typical workflow::

    specbridge import openapi.yaml --prefix petstore   # generate operation files
    specbridge export contracts.yaml -o openapi.json   # and back
    specbridge diff old.json new.json                  # what changed upstream?

Modules:
    parser: Load, resolve and extract OpenAPI documents.
    schema: JSON Schema conversion and the four code-generation dialects.
    importer: OpenAPI operations to operation specs.
    exporter: Canonical registries to OpenAPI.
    differ: Structural diff and sync report.
    contracts: The canonical contract model and registries.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
