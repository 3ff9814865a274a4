from aptshowversions.cli import main

main()
