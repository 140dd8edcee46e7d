"""Public smoke tests for basic module wiring.

Keep these minimal and free of any real-world data.
"""

from __future__ import annotations


def test_imports() -> None:
    import splitz
    import splitz.application.receipts
    import splitz.application.split_server
    import splitz.cli.main
    import splitz.domain
    import splitz.runtime

    assert splitz.__version__
    assert splitz.application.receipts is not None
    assert splitz.application.split_server.app is not None
    assert splitz.cli.main is not None
    assert splitz.domain is not None
    assert splitz.runtime is not None
