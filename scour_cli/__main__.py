from scour_cli.main import main

main()
