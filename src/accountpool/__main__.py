from accountpool.cli import main

main()
