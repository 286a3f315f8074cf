from sheets_uploader.cli import main

raise SystemExit(main())
