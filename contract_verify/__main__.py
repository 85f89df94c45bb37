"""Allow ``python -m contract_verify``."""

from contract_verify.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
