from sitestress.cli import main

main()
