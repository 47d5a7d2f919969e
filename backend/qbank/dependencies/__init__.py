# Dependencies package
