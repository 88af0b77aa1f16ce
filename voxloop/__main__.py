from voxloop.main import main

main()
