from tmboard.cli import main

main()
