import sys

from lulu_lsp_client.cli import main

if __name__ == "__main__":
    sys.exit(main())
