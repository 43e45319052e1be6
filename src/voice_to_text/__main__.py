from voice_to_text.cli import main

if __name__ == "__main__":
    main()
