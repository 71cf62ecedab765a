from r2sync.cli import main

main()
