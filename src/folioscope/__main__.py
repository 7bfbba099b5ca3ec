from folioscope.cli import main

main()
