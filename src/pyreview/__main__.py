from pyreview.cli import main

main()
