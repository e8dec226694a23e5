from scripts.watcher.cli import main

main()
