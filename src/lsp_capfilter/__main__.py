from lsp_capfilter.cli import main

main()
