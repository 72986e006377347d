from personaflow.main import main

main()
