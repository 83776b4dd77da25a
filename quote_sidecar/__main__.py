from quote_sidecar.server import main

main()
