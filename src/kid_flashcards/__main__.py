from kid_flashcards.app import main

main()
