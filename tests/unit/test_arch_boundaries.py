from __future__ import annotations

from pathlib import Path


ROOT = Path(__file__).resolve().parents[2]
PACKAGE = ROOT / "src/suggestgate"


def test_orchestration_does_not_import_vendor_adapters():
    disallowed: list[str] = []
    for name in ("client.py", "health.py", "gateway.py"):
        content = (PACKAGE / "core/providers" / name).read_text(encoding="utf-8")
        if "openai_adapter" in content or "groq_adapter" in content or "lmstudio_adapter" in content:
            disallowed.append(name)
    assert disallowed == [], f"Orchestration imported a vendor adapter directly: {disallowed}"


def test_text_and_runtime_modules_do_not_use_http_clients():
    disallowed: list[str] = []
    for folder in ("core/text", "core/runtime"):
        for py_file in (PACKAGE / folder).rglob("*.py"):
            content = py_file.read_text(encoding="utf-8")
            if "httpx" in content or "requests." in content:
                disallowed.append(str(py_file))
    assert disallowed == [], f"Pure module made HTTP calls: {disallowed}"


def test_adapters_only_read_env_through_injected_mapping():
    adapter_files = [*(PACKAGE / "core/providers").glob("*_adapter.py"), PACKAGE / "core/providers/openai_compatible.py"]
    assert len(adapter_files) == 4
    disallowed: list[str] = []
    for py_file in adapter_files:
        content = py_file.read_text(encoding="utf-8")
        if any(read in content for read in ("os.environ[", "os.environ.get(", "os.getenv(")):
            disallowed.append(py_file.name)
    assert disallowed == [], f"Adapter read the process environment directly: {disallowed}"
