from bashmcp.cli import main

main()
