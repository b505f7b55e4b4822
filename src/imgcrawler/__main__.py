from imgcrawler.cli import main

raise SystemExit(main())
