from gopackagesdriver.cli import main

main()
