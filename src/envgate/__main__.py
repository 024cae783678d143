from envgate.cli.main import main

main()
